"""
TokenForge 代币发行工具 — 状态定义

FRESH → MINT_CREATED → ACCOUNT_CREATED → ISSUED（终态），只能前进。
"""

from dataclasses import dataclass

from tokenforge.common.enums import ProvisioningStep, StepAction


@dataclass(frozen=True)
class StepMetadata:
    """状态元数据"""
    name: str
    description: str
    order: int
    next_action: StepAction | None  # None 表示终态


STEP_METADATA: dict[ProvisioningStep, StepMetadata] = {
    ProvisioningStep.FRESH: StepMetadata(
        name="未开始",
        description="尚未执行任何远端步骤",
        order=0,
        next_action=StepAction.CREATE_MINT,
    ),
    ProvisioningStep.MINT_CREATED: StepMetadata(
        name="铸币已创建",
        description="铸币地址已记录，等待创建持币账户",
        order=1,
        next_action=StepAction.CREATE_HOLDING_ACCOUNT,
    ),
    ProvisioningStep.ACCOUNT_CREATED: StepMetadata(
        name="持币账户已创建",
        description="持币账户已记录，等待发行初始供应量",
        order=2,
        next_action=StepAction.ISSUE_SUPPLY,
    ),
    ProvisioningStep.ISSUED: StepMetadata(
        name="已发行",
        description="初始供应量已发行，流程完成",
        order=3,
        next_action=None,
    ),
}


# 合法状态转换规则（每个状态只有一个后继）
VALID_TRANSITIONS: dict[ProvisioningStep, set[ProvisioningStep]] = {
    ProvisioningStep.FRESH: {ProvisioningStep.MINT_CREATED},
    ProvisioningStep.MINT_CREATED: {ProvisioningStep.ACCOUNT_CREATED},
    ProvisioningStep.ACCOUNT_CREATED: {ProvisioningStep.ISSUED},
    ProvisioningStep.ISSUED: set(),
}


# 每个动作成功后到达的状态
ACTION_RESULTS: dict[StepAction, ProvisioningStep] = {
    StepAction.CREATE_MINT: ProvisioningStep.MINT_CREATED,
    StepAction.CREATE_HOLDING_ACCOUNT: ProvisioningStep.ACCOUNT_CREATED,
    StepAction.ISSUE_SUPPLY: ProvisioningStep.ISSUED,
}


def is_valid_transition(from_step: ProvisioningStep, to_step: ProvisioningStep) -> bool:
    """检查状态转换是否合法"""
    return to_step in VALID_TRANSITIONS.get(from_step, set())


def get_step_metadata(step: ProvisioningStep) -> StepMetadata:
    """获取状态元数据"""
    return STEP_METADATA[step]


def next_action(step: ProvisioningStep) -> StepAction | None:
    """当前状态下待执行的动作，终态返回 None"""
    return STEP_METADATA[step].next_action


def is_terminal(step: ProvisioningStep) -> bool:
    return next_action(step) is None
