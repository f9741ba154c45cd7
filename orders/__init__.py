"""Order management service: carts in, orders out."""
