from .cli.dbmeta import cli

if __name__ == "__main__":
    cli()
