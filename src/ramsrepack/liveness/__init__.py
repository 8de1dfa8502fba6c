#!/usr/bin/python3
########################################################################################
# __init__.py - Python internals module, used to expose code here.                     #
#                                                                                      #
# Author: Ben Winchester                                                               #
# Copyright: Ben Winchester, 2022                                                      #
# Date created: 14/10/2022                                                             #
# License: Open source                                                                 #
########################################################################################
"""
The liveness module"""

from .liveness import (
    GridEngineLivenessCheck,
    LivenessCheck,
    LsfLivenessCheck,
    StandardLivenessCheck,
    get_liveness_check,
)
