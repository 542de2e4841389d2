from pydantic import BaseModel
from typing import List, Optional

# GOALS
class GoalCreate(BaseModel):
    name: Optional[str] = None

class GoalDatesUpdate(BaseModel):
    startDate: Optional[str] = None
    finishDate: Optional[str] = None

class Goal(BaseModel):
    id: str
    name: str
    createdAt: str
    totalStudyTime: int = 0
    startDate: Optional[str] = None
    finishDate: Optional[str] = None

# TOPICS
class TopicCreate(BaseModel):
    name: Optional[str] = None

class Topic(BaseModel):
    id: str
    name: str
    subjectId: str
    studyTime: int = 0

# SUBJECTS
class SubjectCreate(BaseModel):
    name: Optional[str] = None

class SubjectScheduleUpdate(BaseModel):
    dailyMinutesGoal: Optional[int] = None
    daysOfWeek: Optional[List[str]] = None
    startDate: Optional[str] = None
    finishDate: Optional[str] = None

class Subject(BaseModel):
    id: str
    name: str
    goalId: str
    studyTime: int = 0
    dailyMinutesGoal: Optional[int] = None
    daysOfWeek: Optional[List[str]] = None
    startDate: Optional[str] = None
    finishDate: Optional[str] = None

class SubjectDetail(Subject):
    topics: List[Topic] = []

class GoalDetail(Goal):
    subjects: List[SubjectDetail] = []

# SESSIONS
class SessionAction(BaseModel):
    action: Optional[str] = None  # start, stop, add
    goalId: Optional[str] = None
    subjectId: Optional[str] = None
    topicId: Optional[str] = None
    sessionId: Optional[str] = None
    duration: Optional[int] = None
    date: Optional[str] = None
    comment: Optional[str] = None

class SessionUpdate(BaseModel):
    duration: Optional[int] = None
    date: Optional[str] = None
    comment: Optional[str] = None
    subjectId: Optional[str] = None
    topicId: Optional[str] = None

class StudySession(BaseModel):
    id: str
    goalId: str
    subjectId: Optional[str] = None
    topicId: Optional[str] = None
    startTime: str
    endTime: Optional[str] = None
    duration: int
    date: str
    comment: Optional[str] = None

# PROGRESS
class DaysInfo(BaseModel):
    totalDays: int
    elapsedDays: int
    remainingDays: int
    dayProgress: float

class Progress(BaseModel):
    view: str
    targetMinutes: int
    studiedMinutes: int
    percentage: float
    hasTarget: bool
    remainingMinutes: Optional[int] = None
    targetDisplay: str
    studiedDisplay: str
    daysInfo: Optional[DaysInfo] = None

class CalendarDay(BaseModel):
    date: str
    studiedMinutes: int
    targetMinutes: int
    percentage: float
