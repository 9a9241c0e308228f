"""Command-line tools for CryptoArmor."""
