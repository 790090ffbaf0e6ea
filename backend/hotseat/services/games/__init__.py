"""Game domain services: roster, turn rotation and save uploads.

Nothing in here touches Flask request objects. The blueprints and socket
handlers parse input and hand these functions plain ids and file handles.
"""
