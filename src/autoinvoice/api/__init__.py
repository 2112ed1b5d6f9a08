"""HTTP API for reviewing and exporting extracted invoices."""
