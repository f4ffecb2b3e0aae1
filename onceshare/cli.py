import sys
from typing import List, Optional

from . import tokens
from .errors import OnceShareError
from .handler import OneShotHandler, ServingSession
from .lifecycle import LifecycleController
from .logging_config import log
from .metadata import compute_file_metadata


def main(argv: Optional[List[str]] = None) -> int:
    """Share the single file named on the command line; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("Must pass exactly one argument", file=sys.stderr)
        return 1

    try:
        descriptor = compute_file_metadata(args[0])
        session = ServingSession.from_descriptor(descriptor, tokens.generate())
        controller = LifecycleController(OneShotHandler(session))
        url = controller.start()
    except OnceShareError as e:
        log.error("onceshare: %s", e)
        return 1

    log.debug("sha1=%s sha256=%s", session.sha1, session.sha256)
    print(url, flush=True)
    controller.serve_forever()
    return 0
