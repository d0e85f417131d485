"""condbuild - Conditional execution of build step chains behind run conditions and runners."""

from .builders import ConditionalBuilder as ConditionalBuilder
from .builders import SingleConditionalBuilder as SingleConditionalBuilder
from .chain import BuilderChain as BuilderChain
from .chain import StepFailure as StepFailure
from .conditions import AlwaysRun as AlwaysRun
from .conditions import NeverRun as NeverRun
from .conditions import RunCondition as RunCondition
from .conditions import condition as condition
from .context import BuildResult as BuildResult
from .context import Context as Context
from .errors import BuildInterrupted as BuildInterrupted
from .errors import ConditionEvaluationError as ConditionEvaluationError
from .errors import LegacyConversionError as LegacyConversionError
from .graph import ConditionalDependency as ConditionalDependency
from .graph import Dependency as Dependency
from .graph import DependencyGraph as DependencyGraph
from .graph import DependencyMode as DependencyMode
from .graph import DependencyProjector as DependencyProjector
from .legacy import LegacyBuildstepCondition as LegacyBuildstepCondition
from .legacy import migrate_legacy_config as migrate_legacy_config
from .projects import Project as Project
from .runners import BuildStepRunner as BuildStepRunner
from .runners import Outcome as Outcome
from .runners import OutcomeStatus as OutcomeStatus
from .runners import RunnerKind as RunnerKind
from .runners import StepFailurePolicy as StepFailurePolicy
from .steps import BuildStep as BuildStep
from .steps import DependencyDeclarer as DependencyDeclarer
from .steps import step as step
from .workspace import Workspace as Workspace
