"""Runtime: sanitization, visibility evaluation, repeater rows and collaborators."""
