import os

# headless plotting for the whole test run
os.environ.setdefault("MPLBACKEND", "Agg")
