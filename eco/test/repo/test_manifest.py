from __future__ import annotations

from eco.repo.manifest import add_go_work_use, go_work_uses


def test_appends_to_use_block() -> None:
    text = "go 1.22\n\nuse (\n\t./core\n\t./proxy // local\n)\n"

    updated = add_go_work_use(text, "./widget")

    assert updated == "go 1.22\n\nuse (\n\t./core\n\t./proxy // local\n\t./widget\n)\n"
    assert go_work_uses(updated) == ["./core", "./proxy", "./widget"]


def test_appends_after_single_line_uses() -> None:
    text = "go 1.22\n\nuse ./core\nuse ./proxy\n\nreplace x => ../x\n"

    updated = add_go_work_use(text, "./widget")

    assert updated == "go 1.22\n\nuse ./core\nuse ./proxy\nuse ./widget\n\nreplace x => ../x\n"


def test_creates_block_when_missing() -> None:
    assert add_go_work_use("go 1.22\n", "./widget") == "go 1.22\n\nuse (\n\t./widget\n)\n"
    assert add_go_work_use("go 1.22", "./widget") == "go 1.22\n\nuse (\n\t./widget\n)\n"


def test_already_listed_is_unchanged() -> None:
    text = "go 1.22\n\nuse (\n\t./widget\n)\n"
    assert add_go_work_use(text, "./widget") is text


def test_empty_block() -> None:
    assert add_go_work_use("use (\n)\n", "./a") == "use (\n\t./a\n)\n"
