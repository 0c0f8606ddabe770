# src/testfork/worker/__main__.py
"""
Entry point of a worker process.

Runs the tests described by the single JSON argument and reports on stdout.
Anything escaping the run is reported as `uncaughtException`.
"""

import sys
import traceback

from testfork.config.models import ResolvedConfig
from testfork.protocol import MessageKind
from testfork.worker.channel import MessageChannel
from testfork.worker.executor import TestExecutor


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    channel = MessageChannel.claim_stdout()
    try:
        if len(argv) != 1:
            raise ValueError(f"Expected one JSON argument, got {len(argv)}")
        config = ResolvedConfig.from_json(argv[0])
        TestExecutor(config, channel).run()
        return 0
    except Exception as e:
        channel.send(
            MessageKind.UNCAUGHT_EXCEPTION,
            {"name": type(e).__name__, "message": str(e), "stack": traceback.format_exc()},
        )
        return 1
    finally:
        channel.close()


if __name__ == "__main__":
    sys.exit(main())
