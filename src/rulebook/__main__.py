from rulebook.cli import main

if __name__ == "__main__":  # pragma: no cover - exercised via module entrypoint
    raise SystemExit(main())
