"""
Post-processing: export and plotting of the final fields.
"""
