"""
Robotics Scene Vocabulary
=========================

Defines the closed enumerations every scene specification is validated against.
These vocabularies are CLOSED - no values outside these sets are permitted.

The same literal lists are inlined into every instruction set (intake, Stage 1,
Stage 2). They are rendered from this module so the prompts and the contract
schemas can never drift apart.

IMPORTANT: Values are case-sensitive. "Other" (title case) and "other"
(lower case) are both legitimate escape values, in different vocabularies.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Type


class TaskCategory(str, Enum):
    """High-level family of task."""
    PICK_PLACE = "Pick Place"
    NAVIGATION = "Navigation"
    MANIPULATION = "Manipulation"
    ASSEMBLY = "Assembly"
    INSPECTION_MAINTENANCE = "Inspection/Maintenance"
    FABRICATION = "Fabrication"
    HRI = "HRI"
    OTHER = "Other"


class TaskSubcategory(str, Enum):
    """More specific class of task."""
    BIN_PICKING = "bin picking"
    PART_ASSEMBLY_DISASSEMBLY = "part assembly/disassembly"
    PICK_AND_PLACE = "pick and place"
    KITTING = "kitting"
    SORTING = "sorting"
    PACKING = "packing"
    LOADING_UNLOADING = "loading/unloading"
    PALLETIZING = "palletizing"
    GRASPING = "grasping"
    THREADING = "threading"
    ATTACHING = "attaching"
    IN_HAND_MANIPULATION = "in hand manipulation"
    POURING = "pouring"
    INSERTION = "insertion"
    WELDING = "welding"
    CUTTING = "cutting"
    GRINDING = "grinding"
    SPRAYING = "spraying"
    SOLDERING = "soldering"
    SANDING = "sanding"
    DRILLING = "drilling"
    BOLTING_SCREWING = "bolting/screwing"
    SEALING = "sealing"
    MEASUREMENT = "measurement"
    VISUAL_INSPECTION = "visual inspection"
    SENSORY_INSPECTION = "sensory inspection"
    SCANNING = "scanning"
    TRANSPORTATION = "transportation"
    DOCKING = "docking"
    MACHINE_TENDING = "machine tending"
    COLLABORATIVE_ASSEMBLY = "collaborative assembly"
    HUMAN_HANDOVER = "human handover"
    HUMAN_SOCIAL_INTERACTION = "human social interaction"
    CLEANING = "cleaning"
    DEFECT_DETECTION = "defect detection"
    EXPLORATION = "exploration"
    NAVIGATION = "navigation"
    LONG_HORIZON_PLANNING = "long horizon planning"
    MULTI_TASKING = "multi-tasking"


class TaskSkill(str, Enum):
    TOOL_USE = "tool use"
    FORCE_CONTROL = "force control"
    LOCALIZATION = "localization"
    LONG_HORIZON_PLANNING = "long horizon planning"
    GRASP_PLANNING = "grasp planning"
    MOTION_PLANNING = "motion planning"
    MULTI_TASKING = "multi-tasking"
    OBJECT_RECOGNITION = "object recognition"
    DEFORMABLE_OBJECT_HANDLING = "deformable object handling"
    BIMANUAL_MANIPULATION = "bimanual manipulation"
    MOBILE_MANIPULATION = "mobile manipulation"


class TaskEffector(str, Enum):
    PREHENSILE_GRIPPER = "prehensile gripper"
    NON_PREHENSILE_GRIPPER = "non-prehensile gripper"
    DEXTROUS_GRIPPER = "dextrous gripper"


class TaskSensor(str, Enum):
    VISUAL = "visual sensors"
    AUDIO = "audio sensors"
    HAPTIC = "haptic sensors"
    THERMAL = "thermal sensors"
    FORCE = "force sensors"
    TORQUE = "torque sensors"
    DEPTH = "depth sensors"


class Embodiment(str, Enum):
    SINGLE_ARM = "single-arm"
    DUAL_ARM = "dual-arm"
    MOBILE = "mobile"
    STATIONARY = "stationary"
    AERIAL = "aerial"
    OTHER = "other"


class TimeHorizon(str, Enum):
    SHORT = "short"    # seconds to <1 minute
    MEDIUM = "medium"  # 1-10 minutes
    LONG = "long"      # >10 minutes or multi-stage workflow


class EnvironmentType(str, Enum):
    INDUSTRIAL = "Industrial"
    WAREHOUSE = "Warehouse"
    CORPORATE = "Corporate"
    RETAIL = "Retail"
    HOME = "Home"
    LAB = "Lab"
    HOSPITAL = "Hospital"
    CONSTRUCTION = "Construction"
    AGRICULTURE = "Agriculture"
    OUTDOOR = "Outdoor"
    OTHER = "Other"


class StateVariableType(str, Enum):
    CONTINUOUS = "continuous"
    DISCRETE = "discrete"
    CATEGORICAL = "categorical"
    NOMINAL = "nominal"
    ORDINAL = "ordinal"
    BINARY = "binary"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"


class GeneralizationAxis(str, Enum):
    LIGHTING = "lighting"
    FORM_FACTOR = "form factor"
    SKU_VARIANCE = "SKU variance"
    LAYOUT_VARIATION = "layout variation"
    OBJECT_OCCLUSION = "object occlusion"
    HUMAN_INTERACTION = "human interaction"
    OTHER = "other"


class VariabilityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ObservabilityLevel(str, Enum):
    PARTIAL = "partial"
    FULL = "full"
    NONE = "none"


class FailureMode(str, Enum):
    PERCEPTION = "Perception Failure"
    GRASPING_MANIPULATION = "Grasping/Manipulation Failure"
    PLANNING = "Planning Failure"
    TASK_TIMEOUT = "Task Timeout"
    ENVIRONMENT = "Environment Failure"
    TOOL_USE = "Tool Use Failure"
    ACTION_EXECUTION = "Action Execution Failure"
    SAFETY_VIOLATION = "Safety Violation"
    PREMATURE_TERMINATION = "Premature Termination"
    RECOVERY = "Recovery Failure"
    HUMAN_SOCIAL_INTERACTION = "Human Social Interaction Failure"
    OTHER = "Other"


class ResearchBottleneck(str, Enum):
    SCENE_UNDERSTANDING = "scene understanding"
    OBJECT_RECOGNITION = "object recognition"
    DEFORMABLE_OBJECT_HANDLING = "deformable object handling"
    POSE_ESTIMATION = "pose estimation"
    HUMAN_OBJECT_INTERACTION = "human-object interaction"
    LONG_TERM_PLANNING = "long-term planning"
    MULTI_TASK_OBJECT_REASONING = "multi-task / object reasoning"
    BIMANUAL_INTERROBOT_COORDINATION = "bimanual / interrobot coordination"
    MOBILE_MANIPULATION = "mobile manipulation"
    TOOL_USE = "tool use"
    PRECISION_CONTROL = "precision control"
    MEMORY_MANAGEMENT = "memory management"
    SAFETY_ALIGNMENT = "safety alignment"
    FORCE_CONTROL = "force control"
    NOISE_AND_UNCERTAINTY = "noise and uncertainty"
    REWARD_SHAPING = "reward shaping / specification"
    ACTION_LATENCY = "action latency / timing"
    OTHER = "other"


class DataModality(str, Enum):
    RGB = "rgb"
    EGOCENTRIC_VIDEO = "egocentric video"
    THIRD_PERSON_VIDEO = "third-person video"
    TACTILE = "tactile"
    LIDAR = "lidar"
    RADAR = "radar"
    ULTRASONIC = "ultrasonic"
    AUDIO = "audio"
    HAPTICS = "haptics"
    THERMAL = "thermal"
    FORCE_TORQUE = "force_torque"
    PROPRIOCEPTION = "proprioception"
    DEPTH = "depth"
    OTHER = "other"


class IntakeField(str, Enum):
    """The intake fields that can be extracted and followed up on."""
    TASK_DESCRIPTION = "task_description"
    TASK_GOAL = "task_goal"
    TASK_THROUGHPUT = "task_throughput"
    ENVIRONMENT_TYPE = "environment_type"
    ENVIRONMENT_DESCRIPTION = "environment_description"
    SAFETY_REQUIREMENTS = "safety_requirements"
    KEY_ENVIRONMENT_CONSTRAINTS = "key_environment_constraints"
    KEY_ENVIRONMENT_ENTITIES = "key_environment_entities"
    REQUIRED_TOOLS = "required_tools"


class DomainVocabulary:
    """
    Lookup utilities over the closed vocabularies.

    Thread-safe: all data is immutable after initialization.
    """

    # Constraint path (as it appears in the instruction sets) -> vocabulary
    STRUCTURAL_PATHS: Dict[str, Type[Enum]] = {
        "task_category": TaskCategory,
        "task_subcategory": TaskSubcategory,
        "task_required_skills[*]": TaskSkill,
        "task_required_tools[*].task_effectors": TaskEffector,
        "task_required_tools[*].task_sensors": TaskSensor,
        "task_required_embodiment": Embodiment,
        "task_time_horizon": TimeHorizon,
        "environment_type": EnvironmentType,
        "environment_state_variables[*].type": StateVariableType,
        "environment_generalization_axes[*].axis": GeneralizationAxis,
        "environment_generalization_axes[*].expected_variability": VariabilityLevel,
        "environment_observability": ObservabilityLevel,
        "failure_modes[*]": FailureMode,
    }

    ENRICHMENT_PATHS: Dict[str, Type[Enum]] = {
        "research_bottlenecks[*]": ResearchBottleneck,
        "data_collection_requirements[*].data_modalities[*]": DataModality,
    }

    # Public vocabulary names (API / documentation)
    _NAMED: Dict[str, Type[Enum]] = {
        "task_category": TaskCategory,
        "task_subcategory": TaskSubcategory,
        "task_skill": TaskSkill,
        "task_effector": TaskEffector,
        "task_sensor": TaskSensor,
        "embodiment": Embodiment,
        "time_horizon": TimeHorizon,
        "environment_type": EnvironmentType,
        "state_variable_type": StateVariableType,
        "generalization_axis": GeneralizationAxis,
        "variability_level": VariabilityLevel,
        "observability_level": ObservabilityLevel,
        "failure_mode": FailureMode,
        "research_bottleneck": ResearchBottleneck,
        "data_modality": DataModality,
        "intake_field": IntakeField,
    }

    @property
    def names(self) -> List[str]:
        """Return the public names of all vocabularies."""
        return list(self._NAMED.keys())

    def get(self, name: str) -> Optional[Type[Enum]]:
        """Get a vocabulary enum by its public name."""
        return self._NAMED.get(name)

    def values(self, vocabulary: Type[Enum]) -> List[str]:
        """Return the literal values of a vocabulary, in declaration order."""
        return [member.value for member in vocabulary]

    def is_member(self, vocabulary: Type[Enum], value: str) -> bool:
        """Check if a string is an exact (case-sensitive) member of a vocabulary."""
        try:
            vocabulary(value)
            return True
        except ValueError:
            return False

    def render_enum(self, path: str, vocabulary: Type[Enum]) -> str:
        """Render one constraint line block: path ∈ [ "a", "b", ... ]."""
        lines = [f"{path} ∈ ["]
        lines.extend(f'"{value}",' for value in self.values(vocabulary))
        lines[-1] = lines[-1].rstrip(",")
        lines.append("]")
        return "\n".join(lines)

    def render_constraints(self, paths: Dict[str, Type[Enum]]) -> str:
        """Render the inline constraint block for a set of constrained paths."""
        return "\n\n".join(
            self.render_enum(path, vocabulary) for path, vocabulary in paths.items()
        )

    def render_inline(self, vocabulary: Type[Enum]) -> str:
        """Render a vocabulary on one line, e.g. for a single intake field."""
        return ", ".join(f'"{value}"' for value in self.values(vocabulary))

    def to_dict(self, names: Optional[Iterable[str]] = None) -> Dict[str, List[str]]:
        """Return {vocabulary name: [values]} for all (or the selected) vocabularies."""
        selected = names if names is not None else self._NAMED.keys()
        return {name: self.values(self._NAMED[name]) for name in selected}

    @property
    def num_vocabularies(self) -> int:
        return len(self._NAMED)


# Global singleton instance
VOCABULARY = DomainVocabulary()
