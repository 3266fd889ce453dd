"""ethdid core: classifier, schema builder, typed data, hashing, DIDs."""
