from __future__ import annotations

from rearm_ci.platform.command import MASK, Command


def test_argv_keeps_order() -> None:
    cmd = Command("rearm", "getversion").opt("-u", "https://r").arg("--x")
    assert cmd.argv == ("rearm", "getversion", "-u", "https://r", "--x")
    assert cmd.executable == "rearm"


def test_secret_is_masked_in_display_only() -> None:
    cmd = Command("rearm", "addrelease").secret("-k", "s3cr3t").opt("-i", "key-id")

    assert cmd.argv == ("rearm", "addrelease", "-k", "s3cr3t", "-i", "key-id")
    assert cmd.display() == f"rearm addrelease -k {MASK} -i key-id"
    assert "s3cr3t" not in repr(cmd)
    assert cmd.secrets == ("s3cr3t",)


def test_conditional_options() -> None:
    cmd = (
        Command("rearm")
        .opt_if("--commitmessage", None)
        .opt_if("--date", "")
        .opt_if("--commits", "YWJj")
        .flag_if("--allow-rebuild", False)
        .flag_if("--createcomponent", True)
    )
    assert cmd.argv == ("rearm", "--commits", "YWJj", "--createcomponent")


def test_extend_pairs() -> None:
    cmd = Command("rearm").extend([("--branch", "main"), ("--version", "1.0.0")])
    assert cmd.argv[1:] == ("--branch", "main", "--version", "1.0.0")
