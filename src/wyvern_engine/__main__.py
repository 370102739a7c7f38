from .cli import run_cli


def main() -> None:
    run_cli()


if __name__ == "__main__":
    main()
