"""
Command line tools for the Testimonium relay.
"""
