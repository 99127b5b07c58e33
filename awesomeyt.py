# /// script
# dependencies = [
#   "yt-dlp",
#   "typeguard",
#   "python-dotenv",
# ]
# ///

"""A tool to download a video (merged mp4) or its audio (mp3) with yt-dlp and ffmpeg"""

import errno
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from typeguard import typechecked


logger = logging.getLogger(__name__)

MODE_VIDEO = "video"
MODE_AUDIO = "audio"

DEFAULT_OUTPUT_DIR = "~/Downloads/AwesomeYT"

# Homebrew prefixes (Apple Silicon, Intel) are searched before PATH
PREFERRED_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")

OUTPUT_PATTERN = "%(title).200s [%(id)s].%(ext)s"


@dataclass
class ParsedArgs:
    """Parsed command line arguments."""

    mode: str
    output_dir: str
    url: Optional[str] = None
    show_help: bool = False


def eprint(*args):
    print(*args, file=sys.stderr)


def configure_logging() -> None:
    """Configure logging from AWESOMEYT_LOG_LEVEL (default: WARNING)."""
    level_name = os.getenv("AWESOMEYT_LOG_LEVEL", "WARNING").strip().upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def print_usage(prog: str = "awesomeyt") -> None:
    """Print usage instructions."""
    name = prog or "awesomeyt"
    print("Usage:")
    print(f"  {name}")
    print(f"  {name} <url>")
    print(f"  {name} --audio <url>")
    print(f"  {name} --video <url>")
    print(f'  {name} --dir "<folder>" <url>')
    print(f"  {name} -h | --help")
    print()
    print("Default mode: video")


@typechecked
def parse_args(
    args: list[str],
    default_dir: str = DEFAULT_OUTPUT_DIR,
    prog: str = "awesomeyt",
) -> ParsedArgs:
    """Parse command line arguments.

    Exits with status 1 (after printing usage) on an unknown option, a
    ``--dir`` without a value, or more than one URL.
    """
    mode: str = MODE_VIDEO
    output_dir: str = default_dir
    url: Optional[str] = None
    show_help: bool = False

    def fail(message: str) -> None:
        eprint(f"Error: {message}")
        print_usage(prog)
        sys.exit(1)

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "-h" or arg == "--help":
            show_help = True
            i += 1
        elif arg == "--audio":
            mode = MODE_AUDIO
            i += 1
        elif arg == "--video":
            mode = MODE_VIDEO
            i += 1
        elif arg == "--dir":
            if i + 1 >= len(args):
                fail("--dir requires a folder path.")
            output_dir = args[i + 1].strip()
            i += 2
        elif arg.startswith("-"):
            fail(f"unknown option '{arg}'.")
        else:
            if url is not None:
                fail("multiple URLs provided. Pass only one URL.")
            url = arg.strip()
            i += 1

    return ParsedArgs(mode=mode, output_dir=output_dir, url=url, show_help=show_help)


@typechecked
def is_http_url(text: str) -> bool:
    """Check for an http(s) URL with a non-empty remainder and no whitespace."""
    if any(ch.isspace() for ch in text):
        return False

    lowered = text.lower()
    for scheme in ("https://", "http://"):
        if lowered.startswith(scheme):
            return len(text) > len(scheme)
    return False


def clipboard_commands() -> list[list[str]]:
    """Return the clipboard read commands to try for the current platform."""
    if sys.platform == "darwin":
        return [["pbpaste"]]
    if sys.platform.startswith("win"):
        return [["powershell", "-command", "Get-Clipboard"]]
    return [["xclip", "-selection", "clipboard", "-o"], ["xsel", "--clipboard", "--output"]]


def read_clipboard() -> Optional[str]:
    """Read the system clipboard, or None if no clipboard helper succeeded."""
    for cmd in clipboard_commands():
        try:
            result = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            logger.debug("Clipboard helper %s could not be run: %s", cmd[0], e)
            continue
        if result.returncode != 0:
            logger.debug("Clipboard helper %s exited with code %d", cmd[0], result.returncode)
            continue
        # Clipboard may hold arbitrary bytes
        return result.stdout.decode("utf-8", errors="replace")
    return None


def resolve_url(explicit: Optional[str]) -> str:
    """Pick the URL from the argument, then the clipboard, then an interactive prompt."""
    if explicit is not None:
        return explicit.strip()

    clipboard = read_clipboard()
    if clipboard is not None:
        candidate = clipboard.strip()
        if is_http_url(candidate):
            print("Using URL from clipboard.")
            return candidate
        logger.debug("Clipboard content is not an http(s) URL")

    print("Paste URL: ", end="", flush=True)
    try:
        line = sys.stdin.readline()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read URL from stdin: %s", e)
        line = ""
    return line.strip()


@typechecked
def is_executable_file(path: Path) -> bool:
    """Check that path is a regular file the current user may execute."""
    try:
        return path.is_file() and os.access(path, os.X_OK)
    except OSError:
        return False


@typechecked
def find_executable(
    name: str,
    preferred_dirs: Optional[Sequence[str]] = None,
    path_env: Optional[str] = None,
) -> Optional[Path]:
    """
    Locate an executable by name.

    Args:
        name: Program name, e.g. "yt-dlp"
        preferred_dirs: Directories searched first (default: PREFERRED_DIRS)
        path_env: PATH-style search list (default: the PATH environment variable)

    Returns:
        Path to the first regular, executable match, or None
    """
    if preferred_dirs is None:
        preferred_dirs = PREFERRED_DIRS
    if path_env is None:
        path_env = os.environ.get("PATH", "")

    seen: set[str] = set()
    search_dirs = list(preferred_dirs) + path_env.split(os.pathsep)
    for directory in search_dirs:
        if not directory or directory in seen:
            continue
        seen.add(directory)

        candidate = Path(directory) / name
        if is_executable_file(candidate):
            logger.debug("Found %s at %s", name, candidate)
            return candidate

    logger.debug("%s not found in %d searched directories", name, len(seen))
    return None


@typechecked
def expand_tilde(raw_path: str, home: Optional[str] = None) -> Optional[str]:
    """
    Expand a leading "~" or "~/" to the home directory.

    "~user" forms are returned unchanged. Returns None when the path needs
    the home directory and HOME is unset or empty.
    """
    if not raw_path.startswith("~"):
        return raw_path
    if raw_path != "~" and not raw_path.startswith("~/"):
        return raw_path

    if home is None:
        home = os.environ.get("HOME", "")
    if not home:
        return None

    return home + raw_path[1:]


@typechecked
def ensure_directory_exists(path: str) -> None:
    """Create path and any missing parents; an existing directory is fine."""
    if not path:
        raise ValueError("directory path is empty")

    target = Path(path)
    # Each missing prefix is created with 0755, outermost first
    for directory in [*reversed(target.parents), target]:
        if directory.is_dir():
            continue
        try:
            directory.mkdir(mode=0o755)
        except FileExistsError:
            pass
        if not directory.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(directory))


@typechecked
def build_output_template(output_dir: str) -> str:
    """Join the output directory with the yt-dlp filename pattern."""
    if output_dir and not output_dir.endswith("/"):
        return f"{output_dir}/{OUTPUT_PATTERN}"
    return f"{output_dir}{OUTPUT_PATTERN}"


@typechecked
def build_ytdlp_args(
    mode: str,
    output_template: str,
    ffmpeg_path: Optional[Path],
    url: str,
) -> list[str]:
    """Build the yt-dlp argument list (without the executable itself)."""
    args: list[str] = [
        "--newline",  # One progress line per update
        "--progress",
        "--no-playlist",
        "--restrict-filenames",  # ASCII-only, no spaces
        "-o",
        output_template,
    ]

    if ffmpeg_path is not None:
        args.extend(["--ffmpeg-location", str(ffmpeg_path)])

    if mode == MODE_AUDIO:
        args.extend(["-x", "--audio-format", "mp3", "--audio-quality", "0"])
    else:
        args.extend(["-f", "bv*+ba/b", "--merge-output-format", "mp4"])

    args.append(url)
    return args


@typechecked
def run_process(executable: Path, args: list[str]) -> int:
    """
    Run executable with args, sharing this process's stdin/stdout/stderr.

    Returns the child's exit code, 128 + N if it was killed by signal N,
    or 1 if it could not be started.
    """
    cmd = [str(executable), *args]
    logger.debug("Running: %s", " ".join(cmd))

    try:
        result = subprocess.run(cmd)
    except OSError as e:
        eprint(f"Error: failed to execute '{executable}': {e.strerror or e}")
        return 1

    if result.returncode < 0:
        return 128 + (-result.returncode)
    return result.returncode


def reveal_command(folder: str) -> list[str]:
    """Return the command that opens folder in the platform file manager."""
    if sys.platform == "darwin":
        return ["open", folder]
    if sys.platform.startswith("win"):
        return ["explorer", folder]
    return ["xdg-open", folder]


def open_folder_async(folder: str) -> None:
    """Open folder in the file manager without waiting for it."""
    if not folder:
        return

    cmd = reveal_command(folder)
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        logger.debug("Could not launch %s: %s", cmd[0], e)


def print_install_hint(tool: str) -> None:
    """Print how to install a missing external tool."""
    eprint("Install it with Homebrew:")
    eprint(f"  brew install {tool}")
    if tool == "yt-dlp":
        eprint("or with pip:")
        eprint("  pip install yt-dlp")


def run(argv: list[str], prog: str = "awesomeyt") -> int:
    """Run one download and return the process exit code."""
    default_dir = os.getenv("AWESOMEYT_DIR", "").strip() or DEFAULT_OUTPUT_DIR
    parsed: ParsedArgs = parse_args(argv, default_dir=default_dir, prog=prog)

    if parsed.show_help:
        print_usage(prog)
        return 0

    if not parsed.output_dir:
        eprint("Error: output directory cannot be empty.")
        return 1

    url = resolve_url(parsed.url)
    if not url:
        eprint("Error: URL is required and cannot be empty.")
        return 1

    output_dir = expand_tilde(parsed.output_dir)
    if not output_dir:
        eprint(f"Error: could not expand output directory '{parsed.output_dir}'.")
        return 1

    try:
        ensure_directory_exists(output_dir)
    except (OSError, ValueError) as e:
        reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
        eprint(f"Error: failed to create output directory '{output_dir}': {reason}")
        return 1

    yt_dlp_path = find_executable("yt-dlp")
    if yt_dlp_path is None:
        eprint("Error: yt-dlp was not found.")
        print_install_hint("yt-dlp")
        return 1

    ffmpeg_path = find_executable("ffmpeg")
    if ffmpeg_path is None:
        if parsed.mode == MODE_AUDIO:
            eprint("Error: ffmpeg is required for audio mode but was not found.")
            print_install_hint("ffmpeg")
            return 1
        logger.warning("ffmpeg not found; yt-dlp may be unable to merge video and audio")

    output_template = build_output_template(output_dir)
    yt_args = build_ytdlp_args(parsed.mode, output_template, ffmpeg_path, url)

    print("Only download content you own or have permission to download.")
    print(f"Mode: {parsed.mode}")
    print(f"Output directory: {output_dir}")
    sys.stdout.flush()

    exit_code = run_process(yt_dlp_path, yt_args)
    if exit_code == 0:
        print("Done.")
        print("Download complete.")
        sys.stdout.flush()
        open_folder_async(output_dir)
    else:
        logger.info("yt-dlp exited with code %d", exit_code)

    return exit_code


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    configure_logging()

    prog = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "awesomeyt"
    if argv is None:
        argv = sys.argv[1:]

    try:
        return run(argv, prog=prog)
    except KeyboardInterrupt:
        print("\n\nDownload cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
