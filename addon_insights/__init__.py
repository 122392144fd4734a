"""
Add-on Recommendation Insights
Analytics dashboard API for a food-delivery add-on recommendation service
"""

__version__ = "1.0.0"
