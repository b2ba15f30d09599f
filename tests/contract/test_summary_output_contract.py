from __future__ import annotations

import re
from pathlib import Path

from dbase_stream.cli import main as cli_main
from dbase_stream.logging.init import reset_logging

"""SUMMARY 行フォーマット契約テスト"""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+files=([0-9]+)/(\1)\s+success=([0-9]+)\s+failed=([0-9]+)\s+"
    r"records=([0-9]+)\s+deleted=([0-9]+)\s+invalid=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY files=1/1 success=1 failed=0 records=4 deleted=0 invalid=0 "
        "elapsed_sec=0.84 throughput_rps=4.762"
    )
    assert SUMMARY_PATTERN.match(line)


def test_cli_prints_exactly_one_summary_line(write_config, people_files, temp_workdir: Path, capsys):
    reset_logging()
    cli_main([])
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("SUMMARY")]
    assert len(lines) == 1
    m = SUMMARY_PATTERN.match(lines[0])
    assert m, lines[0]
    assert m.group(5) == "3"
    assert m.group(6) == "1"
