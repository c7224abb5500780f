"""Browser automation layer: shared Chromium lifecycle, page sessions, detection and captcha handling."""
