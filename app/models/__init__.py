from .goal import Goal, GoalStatus
from .task import Task, TaskStatus
from .metric import Metric, MetricLog, MetricDirection
from .habit import Habit, HabitLog, HabitFrequency
from .links import task_goals, goal_metrics, habit_goals

__all__ = [
    "Goal",
    "GoalStatus",
    "Task",
    "TaskStatus",
    "Metric",
    "MetricLog",
    "MetricDirection",
    "Habit",
    "HabitLog",
    "HabitFrequency",
    "task_goals",
    "goal_metrics",
    "habit_goals",
]
