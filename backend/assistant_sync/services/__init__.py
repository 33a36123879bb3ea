"""Remote service client, substrate stores and helpers."""
