"""Line-oriented shell for TxStore.

One command per line, read from stdin:

    SET name value      GET name        UNSET name      NUMEQUALTO value
    BEGIN               ROLLBACK        COMMIT          END

Usage:
    python txshell.py < commands.txt
    python txshell.py --log_level DEBUG
"""

import argparse
import logging
import sys

from txstore import NoOpenTransaction, TxStore

logger = logging.getLogger(__name__)


def handle_set(db, args, out):
    if len(args) != 2:
        return False
    db.set(args[0], args[1])
    return True


def handle_get(db, args, out):
    """GET: print the value of a key, or NULL."""
    if len(args) != 1:
        return False
    print(db.get(args[0], "NULL"), file=out)
    return True


def handle_unset(db, args, out):
    if len(args) != 1:
        return False
    db.delete(args[0])
    return True


def handle_numequalto(db, args, out):
    """NUMEQUALTO: print how many keys currently hold a value."""
    if len(args) != 1:
        return False
    print(db.count(args[0]), file=out)
    return True


def handle_begin(db, args, out):
    if args:
        return False
    db.begin()
    return True


def handle_rollback(db, args, out):
    if args:
        return False
    try:
        db.rollback()
    except NoOpenTransaction:
        print("NO TRANSACTION", file=out)
    return True


def handle_commit(db, args, out):
    if args:
        return False
    try:
        db.commit()
    except NoOpenTransaction:
        print("NO TRANSACTION", file=out)
    return True


COMMANDS = {
    "SET": handle_set,
    "GET": handle_get,
    "UNSET": handle_unset,
    "NUMEQUALTO": handle_numequalto,
    "BEGIN": handle_begin,
    "ROLLBACK": handle_rollback,
    "COMMIT": handle_commit,
}


def run(db, lines, out=None):
    """Execute commands from *lines* against *db*, writing results to *out*.

    Stops at END or when *lines* runs out. Returns the exit code.
    """
    if out is None:
        out = sys.stdout
    for line in lines:
        line = line.strip()
        if not line:
            continue
        cmd_name, *parts = line.split()
        cmd = cmd_name.upper()

        if cmd == "END":
            return 0

        handler = COMMANDS.get(cmd)
        if not handler or not handler(db, parts, out):
            logger.info("rejected command: %r", line)
            print("ERROR", file=out)
    return 0


def prompted_lines(stream, prompt, out):
    """Yield lines from *stream*, writing *prompt* to *out* before each read."""
    while True:
        if prompt:
            out.write(prompt)
            out.flush()
        line = stream.readline()
        if not line:
            return
        yield line


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Transactional key/value shell. Reads commands from stdin; END to quit.")
    p.add_argument("--prompt", type=str, default="> ",
                   help="Prompt shown before each command when stdin is a terminal. Default='> '")
    p.add_argument("--no_prompt", action="store_true",
                   help="Never show a prompt, even on a terminal")
    p.add_argument("--log_level", type=str, default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Diagnostics go to stderr. Default=WARNING")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(stream=sys.stderr, level=args.log_level,
                        format="%(levelname)s %(name)s: %(message)s")

    prompt = None
    if not args.no_prompt and sys.stdin.isatty():
        prompt = args.prompt

    db = TxStore()
    try:
        return run(db, prompted_lines(sys.stdin, prompt, sys.stdout), sys.stdout)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
