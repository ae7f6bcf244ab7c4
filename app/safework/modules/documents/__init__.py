"""
Documents module: PDF generation (reportlab) plus stored uploads.

Generated artifacts are written to Storage (local or S3) with a sha256 and never mutated.
"""
