import argparse
import json
import logging
import sys

from verifier.validation import validate_exercises

def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)

def validate(paths: list[str], strict: bool = False) -> int:
    errors = 0
    warnings = 0
    for path in paths:
        try:
            payload = _load_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            print(f"ERROR: {path}: cannot load: {exc}")
            errors += 1
            continue
        if not isinstance(payload, (dict, list)):
            print(f"ERROR: {path}: expected an object with 'exercises' or a list")
            errors += 1
            continue
        for issue in validate_exercises(payload):
            where = path if not issue.slug else f"{path} [{issue.slug}]"
            if issue.field:
                where = f"{where} {issue.field}"
            if issue.severity == "error":
                print(f"ERROR: {where}: {issue.message}")
                errors += 1
            else:
                print(f"WARNING: {where}: {issue.message}")
                warnings += 1

    if errors or (strict and warnings):
        return 1
    print(f"OK ({warnings} warnings)" if warnings else "OK")
    return 0

def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Validate exercise JSON files")
    parser.add_argument("files", nargs="+", help="exercise JSON files")
    parser.add_argument("--strict", action="store_true", help="treat warnings as errors")
    args = parser.parse_args(argv)
    return validate(args.files, strict=args.strict)

if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
