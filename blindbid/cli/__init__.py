"""BlindBid command line interface."""
