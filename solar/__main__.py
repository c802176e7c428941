import sys

from solar.solar_runtime import ScriptRunner


def run_tree_file(file_path: str):
    """Run a serialized Solar parse tree and exit with appropriate status."""
    runner = ScriptRunner()
    try:
        result = runner.handle_file(file_path)
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    except OSError as e:
        print(f"Error: cannot read {file_path}: {e.strerror or e}", file=sys.stderr)
        raise SystemExit(1)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)


def main():
    if len(sys.argv) != 2 or sys.argv[1].startswith("-"):
        print("usage: python -m solar <tree.json|tree.yaml>", file=sys.stderr)
        raise SystemExit(2)
    run_tree_file(sys.argv[1])


if __name__ == "__main__":
    main()
