"""tierstash: dated backups kept across daily, weekly and monthly horizons."""

__version__ = "0.1.0"
