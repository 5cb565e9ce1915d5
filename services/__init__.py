"""
Services Package

Business logic for ordering, subscriptions, deliveries, notifications and outlet settings.
Routes stay thin and call into these modules; rejections are raised as services.errors types.
"""
