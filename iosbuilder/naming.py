#!/usr/bin/env python3
"""
Output file naming from `$APP_NAME` templates.

The base name of a discovered bundle (its name minus the extension) is
substituted into the template. For the full file name, only the first
occurrence of the base name in the original name is replaced, so
`MyApp.app.dSYM` with `$APP_NAME-v1` becomes `MyApp-v1.app.dSYM`.
"""

import re

APP_NAME = "$APP_NAME"

APP_SUFFIX = r"\.app$"
DSYM_SUFFIX = r"\.app\.dSYM$"


def basename_with_template(name: str, template: str, extension_regex: str) -> str:
    """Strip extension_regex from name and substitute the rest into template."""
    basename = re.sub(extension_regex, "", name)
    return template.replace(APP_NAME, basename)


def filename_with_template(name: str, template: str, extension_regex: str) -> str:
    """Like basename_with_template, but keep the rest of the original name."""
    basename = re.sub(extension_regex, "", name)
    return name.replace(basename, template.replace(APP_NAME, basename), 1)


def ipa_name(app_name: str, template: str) -> str:
    """`MyApp.app` -> `<template>.app.ipa`."""
    return filename_with_template(app_name, template, APP_SUFFIX) + ".ipa"


def dsym_zip_name(dsym_name: str, template: str) -> str:
    """`MyApp.app.dSYM` -> `<template>.app.dSYM.zip`."""
    return filename_with_template(dsym_name, template, DSYM_SUFFIX) + ".zip"
