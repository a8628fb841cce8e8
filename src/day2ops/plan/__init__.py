"""
day2ops.plan - the plan/instruction protocol.

Modules
-------
instructions   Instruction value object, InstructionKind and factories
codec          Canonical plan bytes and the gzip+JSON output map
store          PlanTarget, PlanRecord, PlanStore protocol, InMemoryPlanStore
sql_store      SqlPlanStore (SQLAlchemy); import it explicitly
planner        Planner, PlanOutput, plan_name
"""

from day2ops.plan.codec import decode_output, decode_plan, encode_output, encode_plan
from day2ops.plan.instructions import Instruction, InstructionKind, build_instruction
from day2ops.plan.planner import PlanOutput, Planner, plan_name
from day2ops.plan.store import InMemoryPlanStore, PlanRecord, PlanStore, PlanTarget

__all__ = [
    "decode_output",
    "decode_plan",
    "encode_output",
    "encode_plan",
    "Instruction",
    "InstructionKind",
    "build_instruction",
    "PlanOutput",
    "Planner",
    "plan_name",
    "InMemoryPlanStore",
    "PlanRecord",
    "PlanStore",
    "PlanTarget",
]
