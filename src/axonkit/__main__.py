from axonkit.cli import main

if __name__ == "__main__":  # pragma: no cover - convenience execution
    raise SystemExit(main())
