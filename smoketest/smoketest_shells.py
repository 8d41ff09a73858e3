from __future__ import annotations

import argparse
import logging
import random
import subprocess
import sys
import tempfile
import threading
import time
from pathlib import Path

SHELL_COUNT = 8
VISITS_PER_SHELL = 20
CONFIG_TEMPLATE = """\
[store]
data_path = {root}/store.txt
lock_timeout_seconds = 10

[logging]
log_path = {root}/jumper.log
"""

logger = logging.getLogger(__name__)


def _run_shell(number: int, config_path: Path, visits: int) -> None:
    """Act like one interactive shell recording directory changes."""
    for visit in range(visits):
        path = f"/smoketest/shell{number:02d}/dir{random.randint(0, 4)}"
        cmd = [sys.executable, "-m", "dir_jumper", "--add", path]
        subprocess.run(
            [*cmd, "--config", str(config_path)],
            check=True,
        )
        logger.debug("shell %s visit %s: %s", number, visit, path)


def smoketest_runner(shell_count: int, visits: int) -> int:
    """Record visits from many shells at once and check none were lost."""
    with tempfile.TemporaryDirectory() as root:
        config_path = Path(root) / "jumper.ini"
        config_path.write_text(CONFIG_TEMPLATE.format(root=root))

        tic = time.perf_counter()
        threads = [
            threading.Thread(target=_run_shell, args=(number, config_path, visits))
            for number in range(shell_count)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        toc = time.perf_counter()

        stat_cmd = [sys.executable, "-m", "dir_jumper", "--stat"]
        stat = subprocess.run(
            [*stat_cmd, "--config", str(config_path)],
            check=True,
            capture_output=True,
            text=True,
        )
        print(stat.stdout)

        expected_weight = shell_count * visits * 10.0
        total_line = next(
            line for line in stat.stdout.splitlines() if "total weight" in line
        )
        total_weight = float(total_line.split(":")[0])

        visit_count = shell_count * visits
        logger.info("Recorded %s visits in %s seconds", visit_count, toc - tic)
        if total_weight != expected_weight:
            logger.error(
                "Lost visits: expected %s, got %s", expected_weight, total_weight
            )
            return 1

        logger.info("No visits lost")
        return 0


def main() -> int:
    """Run the concurrent shells smoketest."""
    parser = argparse.ArgumentParser(description=smoketest_runner.__doc__)
    parser.add_argument("--shells", type=int, default=SHELL_COUNT)
    parser.add_argument("--visits", type=int, default=VISITS_PER_SHELL)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    return smoketest_runner(args.shells, args.visits)


if __name__ == "__main__":
    raise SystemExit(main())
