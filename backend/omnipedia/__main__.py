"""Entry point for python -m omnipedia"""
from omnipedia.cli.commands import app

if __name__ == "__main__":
    app()
