import pytest

from modarchiver.logging_utils import log_error, log_info, log_progress, log_warn, set_threshold


@pytest.fixture(autouse=True)
def reset_threshold():
    yield
    set_threshold(None)


def test_messages_carry_level_and_indent(capsys):
    log_info("copied", indent=2)
    log_warn("missing")

    assert capsys.readouterr().out.splitlines() == ["  [info] copied", "[warn] missing"]


def test_threshold_hides_lower_levels(capsys):
    set_threshold("warn")

    log_info("hidden")
    log_progress(500, "files")
    log_warn("shown")
    log_error("also shown")

    assert capsys.readouterr().out.splitlines() == ["[warn] shown", "[error] also shown"]


def test_progress_every_interval(capsys):
    for done in range(1, 8):
        log_progress(done, "files", interval=3)

    assert capsys.readouterr().out.splitlines() == ["[progress] files: 3 processed", "[progress] files: 6 processed"]
