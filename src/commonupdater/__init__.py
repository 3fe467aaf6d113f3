"""Self-replacing application updater.

Checks an operator-controlled version feed (falling back to the public
GitHub release index), downloads a newer build, stops running copies and
hands the file swap to a short-lived helper process so that even a running
executable, including the updater itself, can be replaced.
"""

__version__ = "1.0.0"
