import os
from datetime import date
from dotenv import load_dotenv
from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.orm import Session
from typing import List, Optional

import models, schemas, crud, errors
from database import get_db, init_db
from ledger import SessionLedger, UNSET
from logging_setup import setup_logger
from progress import compute_progress, days_info, month_calendar, overall_progress

load_dotenv()
setup_logger()

# Create tables
init_db()

app = FastAPI(title="Study Tracker API")

# CORS configuration
frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")
origins = [
    frontend_url,
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if os.getenv("NODE_ENV") == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.NotFoundError: status.HTTP_404_NOT_FOUND,
    errors.ConflictError: status.HTTP_409_CONFLICT,
}

@app.exception_handler(errors.StudyTrackerError)
async def domain_error_handler(request: Request, exc: errors.StudyTrackerError):
    code = next((c for cls, c in ERROR_STATUS.items() if isinstance(exc, cls)), status.HTTP_400_BAD_REQUEST)
    logger.warning(f"{request.method} {request.url.path} rejected ({code}): {exc.message}")
    return JSONResponse(status_code=code, content={"detail": exc.message})

def get_ledger(db: Session = Depends(get_db)) -> SessionLedger:
    return SessionLedger(db)

# Response mapping (snake_case rows to camelCase payloads)
def goal_out(g: models.Goal) -> schemas.Goal:
    return schemas.Goal(
        id=g.id, name=g.name, createdAt=g.created_at, totalStudyTime=g.total_study_time,
        startDate=g.start_date, finishDate=g.finish_date
    )

def topic_out(t: models.Topic) -> schemas.Topic:
    return schemas.Topic(id=t.id, name=t.name, subjectId=t.subject_id, studyTime=t.study_time)

def subject_out(s: models.Subject) -> schemas.Subject:
    return schemas.Subject(
        id=s.id, name=s.name, goalId=s.goal_id, studyTime=s.study_time,
        dailyMinutesGoal=s.daily_minutes_goal, daysOfWeek=s.days_of_week,
        startDate=s.start_date, finishDate=s.finish_date
    )

def goal_detail_out(g: models.Goal) -> schemas.GoalDetail:
    subjects = [
        schemas.SubjectDetail(**subject_out(s).model_dump(), topics=[topic_out(t) for t in s.topics])
        for s in g.subjects
    ]
    return schemas.GoalDetail(**goal_out(g).model_dump(), subjects=subjects)

def session_out(s: models.StudySession) -> schemas.StudySession:
    return schemas.StudySession(
        id=s.id, goalId=s.goal_id, subjectId=s.subject_id, topicId=s.topic_id,
        startTime=s.start_time, endTime=s.end_time, duration=s.duration, date=s.date, comment=s.comment
    )

def today() -> str:
    return date.today().isoformat()

# GOALS ENDPOINTS
@app.get("/goals", response_model=List[schemas.GoalDetail])
def read_goals(db: Session = Depends(get_db)):
    return [goal_detail_out(g) for g in crud.list_goals(db)]

@app.post("/goals", response_model=schemas.Goal, status_code=201)
def create_goal(goal: schemas.GoalCreate, db: Session = Depends(get_db)):
    return goal_out(crud.create_goal(db, goal.name))

@app.get("/goals/{goal_id}", response_model=schemas.GoalDetail)
def read_goal(goal_id: str, db: Session = Depends(get_db)):
    return goal_detail_out(crud.get_goal(db, goal_id))

@app.patch("/goals/{goal_id}", response_model=schemas.Goal)
def update_goal(goal_id: str, body: schemas.GoalDatesUpdate, db: Session = Depends(get_db)):
    return goal_out(crud.update_goal_dates(db, goal_id, body.startDate, body.finishDate))

@app.delete("/goals/{goal_id}")
def delete_goal(goal_id: str, db: Session = Depends(get_db)):
    crud.delete_goal(db, goal_id)
    return {"success": True}

# SUBJECTS ENDPOINTS
@app.post("/goals/{goal_id}/subjects", response_model=schemas.Subject, status_code=201)
def create_subject(goal_id: str, subject: schemas.SubjectCreate, db: Session = Depends(get_db)):
    return subject_out(crud.create_subject(db, goal_id, subject.name))

@app.patch("/subjects/{subject_id}", response_model=schemas.Subject)
def update_subject(subject_id: str, body: schemas.SubjectScheduleUpdate, db: Session = Depends(get_db)):
    subject = crud.update_subject_schedule(
        db, subject_id, body.dailyMinutesGoal, body.daysOfWeek, body.startDate, body.finishDate
    )
    return subject_out(subject)

@app.post("/subjects/{subject_id}/topics", response_model=schemas.Topic, status_code=201)
def create_topic(subject_id: str, topic: schemas.TopicCreate, db: Session = Depends(get_db)):
    return topic_out(crud.create_topic(db, subject_id, topic.name))

# SESSIONS ENDPOINTS
@app.get("/sessions", response_model=List[schemas.StudySession])
def read_sessions(goalId: Optional[str] = None, subjectId: Optional[str] = None, topicId: Optional[str] = None,
                  ledger: SessionLedger = Depends(get_ledger)):
    return [session_out(s) for s in ledger.list(goalId, subjectId, topicId)]

@app.post("/sessions", response_model=schemas.StudySession)
def handle_session(body: schemas.SessionAction, response: Response, ledger: SessionLedger = Depends(get_ledger)):
    if body.action == "start":
        response.status_code = 201
        return session_out(ledger.start(body.goalId, body.subjectId, body.topicId))
    if body.action == "stop":
        return session_out(ledger.stop(body.sessionId))
    if body.action == "add":
        response.status_code = 201
        return session_out(ledger.add(body.goalId, body.subjectId, body.duration, body.date, body.topicId, body.comment))
    raise errors.ValidationError("Action must be 'start', 'stop' or 'add'")

@app.patch("/sessions/{session_id}", response_model=schemas.StudySession)
def update_session(session_id: str, body: schemas.SessionUpdate, ledger: SessionLedger = Depends(get_ledger)):
    # only fields present in the request body are changed
    changes = {field: getattr(body, field) for field in body.model_fields_set}
    session = ledger.edit(
        session_id,
        duration=changes.get("duration", UNSET),
        date=changes.get("date", UNSET),
        comment=changes.get("comment", UNSET),
        subject_id=changes.get("subjectId", UNSET),
        topic_id=changes.get("topicId", UNSET),
    )
    return session_out(session)

@app.delete("/sessions/{session_id}")
def delete_session(session_id: str, ledger: SessionLedger = Depends(get_ledger)):
    ledger.delete(session_id)
    return {"success": True}

# PROGRESS ENDPOINTS
@app.get("/goals/{goal_id}/progress", response_model=schemas.Progress)
def goal_progress(goal_id: str, view: str = "day", date: Optional[str] = None,
                  db: Session = Depends(get_db), ledger: SessionLedger = Depends(get_ledger)):
    goal = crud.get_goal(db, goal_id)
    reference = date or today()
    progress = compute_progress(goal, ledger.list(goal_id=goal_id), view, reference)
    progress.daysInfo = days_info(goal, reference)
    return progress

@app.get("/subjects/{subject_id}/progress", response_model=schemas.Progress)
def subject_progress(subject_id: str, view: str = "day", date: Optional[str] = None,
                     db: Session = Depends(get_db), ledger: SessionLedger = Depends(get_ledger)):
    subject = crud.get_subject(db, subject_id)
    sessions = ledger.list(goal_id=subject.goal_id, subject_id=subject_id)
    return compute_progress(subject, sessions, view, date or today())

@app.get("/progress", response_model=schemas.Progress)
def total_progress(view: str = "total", date: Optional[str] = None,
                   db: Session = Depends(get_db), ledger: SessionLedger = Depends(get_ledger)):
    return overall_progress(crud.list_goals(db), ledger.list(), view, date or today())

@app.get("/goals/{goal_id}/calendar", response_model=List[schemas.CalendarDay])
def goal_calendar(goal_id: str, month: Optional[str] = None,
                  db: Session = Depends(get_db), ledger: SessionLedger = Depends(get_ledger)):
    goal = crud.get_goal(db, goal_id)
    try:
        year, month_no = (int(part) for part in (month or today()[:7]).split("-"))
        days = month_calendar(goal.subjects, ledger.list(goal_id=goal_id), year, month_no)
    except ValueError as exc:
        raise errors.ValidationError("month must be in YYYY-MM format") from exc
    return days

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
