"""
sftp-stream - Command line entry point

Small file-transfer CLI over the Session API: list, print, download,
upload, stat, remove and create remote paths.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import PurePosixPath

from .config import load_config
from .errors import SFTPError
from .logger import setup_logging
from .sftp_transport import start

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="sftp-stream",
        description="sftp-stream - Stream files over SFTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sftp-stream --host myserver.com --user alice ls /var/log -l
  sftp-stream --config config.ini cat /etc/motd
  sftp-stream --host myserver.com --key-file ~/.ssh/id_ed25519 get /tmp/report.csv
  sftp-stream --config config.ini put build.tar.gz /srv/uploads/build.tar.gz --mode 600
        """,
    )

    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--host", help="SSH Host")
    parser.add_argument("--port", type=int, help="SSH Port")
    parser.add_argument("--user", help="SSH Username")
    parser.add_argument("--password", help="SSH Password")
    parser.add_argument("--key-file", help="Path to SSH private key")
    parser.add_argument("--key-passphrase", help="Passphrase for encrypted SSH key")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    ls_parser = subparsers.add_parser("ls", help="List a remote directory")
    ls_parser.add_argument("path", nargs="?", default=".", help="Remote directory")
    ls_parser.add_argument("-l", dest="long", action="store_true", help="Long listing format")

    cat_parser = subparsers.add_parser("cat", help="Print a remote file to stdout")
    cat_parser.add_argument("path", help="Remote file")

    get_parser = subparsers.add_parser("get", help="Download a remote file")
    get_parser.add_argument("remote", help="Remote file")
    get_parser.add_argument("local", nargs="?", help="Local destination (default: remote name)")

    put_parser = subparsers.add_parser("put", help="Upload a local file")
    put_parser.add_argument("local", help="Local file")
    put_parser.add_argument("remote", help="Remote destination")
    put_parser.add_argument("--mode", help="Octal permissions for a new remote file (e.g. 600)")

    stat_parser = subparsers.add_parser("stat", help="Show remote file attributes")
    stat_parser.add_argument("path", help="Remote path")

    rm_parser = subparsers.add_parser("rm", help="Remove a remote file")
    rm_parser.add_argument("path", help="Remote file")

    mkdir_parser = subparsers.add_parser("mkdir", help="Create a remote directory")
    mkdir_parser.add_argument("path", help="Remote directory")

    return parser.parse_args(argv)


def cmd_ls(session, args):
    """Print one entry per line, in server order."""
    for entry in session.dir().foreach(args.path):
        print(entry.longname if args.long and entry.longname else entry.name)
    return 0


def cmd_cat(session, args):
    out = sys.stdout.buffer
    session.download(args.path, out)
    out.flush()
    return 0


def cmd_get(session, args):
    local = args.local or PurePosixPath(args.remote).name
    total = session.download(args.remote, local)
    print(f"[OK] Downloaded {total} bytes to {local}")
    return 0


def cmd_put(session, args):
    mode = int(args.mode, 8) if args.mode else None
    total = session.upload(args.local, args.remote, mode)
    print(f"[OK] Uploaded {total} bytes to {args.remote}")
    return 0


def cmd_stat(session, args):
    st = session.stat(args.path)
    mtime = datetime.fromtimestamp(st.mtime).isoformat(sep=" ") if st.mtime else "-"
    print(f"  Path: {args.path}")
    print(f"  Type: {st.ftype.value}")
    print(f"  Size: {st.size if st.size is not None else '-'}")
    print(f"  Mode: {st.umode():03d}")
    print(f"   Uid: {st.uid if st.uid is not None else '-'}")
    print(f"   Gid: {st.gid if st.gid is not None else '-'}")
    print(f"Modify: {mtime}")
    return 0


def cmd_rm(session, args):
    if not session.delete(args.path):
        print(f"[ERROR] Could not remove {args.path} (status {session.last_errno})")
        return 1
    return 0


def cmd_mkdir(session, args):
    if not session.mkdir(args.path):
        print(f"[ERROR] Could not create {args.path} (status {session.last_errno})")
        return 1
    return 0


COMMANDS = {
    "ls": cmd_ls,
    "cat": cmd_cat,
    "get": cmd_get,
    "put": cmd_put,
    "stat": cmd_stat,
    "rm": cmd_rm,
    "mkdir": cmd_mkdir,
}


def run_command(args):
    """
    Load configuration, connect and run one subcommand.

    Returns:
        Process exit code: 0 on success, 1 on any configuration,
        connection or SFTP error.
    """
    try:
        config = load_config(
            config_path=args.config,
            host=args.host,
            port=args.port,
            username=args.user,
            password=args.password,
            key_file=args.key_file,
            key_passphrase=args.key_passphrase,
            debug=args.verbose,
        )
    except ValueError as e:
        print(f"[ERROR] Configuration error: {e}")
        return 1
    except FileNotFoundError as e:
        print(f"[ERROR] {e}")
        return 1

    setup_logging(config.logging)
    server_desc = f"{config.ssh.host}:{config.ssh.port}"

    try:
        with start(config.ssh, config.connection, config.transfer) as session:
            return COMMANDS[args.command](session, args)
    except SFTPError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"[ERROR] {e}")
        return 1
    except PermissionError as e:
        logger.error("Authentication failed: %s", e)
        print(f"[ERROR] Authentication failed: {e}")
        return 1
    except TimeoutError as e:
        logger.error("Connection timed out: %s", e)
        print(f"[ERROR] Connection to {server_desc} timed out")
        return 1
    except ConnectionError as e:
        logger.error("Failed to connect to server: %s", e)
        print(f"[ERROR] Could not connect to server at {server_desc}")
        print(f"        {e}")
        return 1
    except OSError as e:
        logger.error("Local I/O error: %s", e)
        print(f"[ERROR] {e}")
        return 1


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.command in COMMANDS:
        return run_command(args)

    print("Usage: sftp-stream [options] <command> [args]")
    print()
    print("Commands:")
    print("  ls      List a remote directory")
    print("  cat     Print a remote file to stdout")
    print("  get     Download a remote file")
    print("  put     Upload a local file")
    print("  stat    Show remote file attributes")
    print("  rm      Remove a remote file")
    print("  mkdir   Create a remote directory")
    print()
    print("Run 'sftp-stream <command> --help' for more information.")
    return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
