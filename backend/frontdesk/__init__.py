"""FrontDesk clinic walk-in queue backend."""
