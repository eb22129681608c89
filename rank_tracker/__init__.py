"""ネイバーショッピング検索順位トラッカー."""
