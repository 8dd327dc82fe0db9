from . import lib  # so: from modules.jobs_crawler import lib
from .main import run  # so: from modules.jobs_crawler import run

__all__ = ["lib", "run"]
