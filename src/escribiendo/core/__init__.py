"""Core learning logic: rule catalog, drill selection and generation, book storage."""
