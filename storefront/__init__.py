"""NA storefront backend."""
