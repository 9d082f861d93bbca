"""
Utils Package - helpers, page content reduction and run export
"""
