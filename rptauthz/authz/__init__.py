# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package authz implements policies, permission resolution and decisions.
"""

from .types import (
    Vote,
    Logic,
    PolicyType,
    Policy,
    PermissionDefinition,
)

from .context import (
    DecisionContext,
    Evaluation,
    EvaluationTrace,
    EvaluationTraceManager,
    ResourcePermission,
    get_evaluation_trace,
)

from .resolver import (
    NoMatch,
    PermissionResolver,
    ResolvedPermissions,
)

from .evaluator import (
    PolicyEvaluator,
    combine_votes,
    granted_scopes,
)

from .policies import (
    ScriptPolicy,
    UserPolicy,
    RolePolicy,
    ClientPolicy,
    TimePolicy,
    AggregatePolicy,
    policy_from_dict,
)

from .permissions import PermissionListManager

from .processor import (
    AuthorizationRequestProcessor,
    ProcessingResult,
    ResourceUnit,
)

__all__ = [
    # Types
    'Vote', 'Logic', 'PolicyType', 'Policy', 'PermissionDefinition',

    # Context
    'DecisionContext', 'Evaluation', 'EvaluationTrace', 'EvaluationTraceManager',
    'ResourcePermission', 'get_evaluation_trace',

    # Resolution and evaluation
    'NoMatch', 'PermissionResolver', 'ResolvedPermissions',
    'PolicyEvaluator', 'combine_votes', 'granted_scopes',

    # Policies
    'ScriptPolicy', 'UserPolicy', 'RolePolicy', 'ClientPolicy', 'TimePolicy',
    'AggregatePolicy', 'policy_from_dict',

    # Requests
    'PermissionListManager', 'AuthorizationRequestProcessor', 'ProcessingResult', 'ResourceUnit',
]
