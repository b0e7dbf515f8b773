"""
BlindBid - client core for sealed-bid (blind) auctions.

Drives the commit-reveal workflow against on-chain auction contracts:
- Blinded-bid commitments and reveal payloads
- Auction phase derivation
- Resilient batch reads over a rate-limited RPC endpoint
- Local bid ledger and ended-auction cache
"""
