"""
SMS and email alert delivery with retry bookkeeping.
"""
