from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from performate.config import settings
from performate.core.router_guard import _resolve_token, call_service, require_auth_user
from performate.db import get_db
from performate.schemas import SigninRequest, SignupRequest
from performate.services.auth_service import AuthenticationError, clear_session_token, signin, signup


router = APIRouter(prefix='/api/auth', tags=['Auth'])


def _session_cookie_response(data: dict, status_code: int = 200):
    response = JSONResponse(
        {
            'ok': True,
            'token': data['token'],
            'mentor': data['mentor'],
            'expires_at': data['expires_at'],
        },
        status_code=status_code,
    )
    response.set_cookie(
        key='auth_session',
        value=data['token'],
        httponly=True,
        samesite='lax',
        secure=settings.app_env == 'production',
        max_age=60 * 60 * 24 * settings.auth_session_max_age_days,
    )
    return response


@router.post('/signup')
def signup_api(payload: SignupRequest, db: Session = Depends(get_db)):
    data = call_service(
        db,
        lambda: signup(
            db,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            short_form=payload.short_form,
        ),
    )
    return _session_cookie_response(data, status_code=201)


@router.post('/signin')
def signin_api(payload: SigninRequest, db: Session = Depends(get_db)):
    def _signin():
        try:
            return signin(db, email=payload.email, password=payload.password)
        except AuthenticationError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    data = call_service(db, _signin)
    return _session_cookie_response(data)


@router.post('/signout')
def signout_api(request: Request):
    clear_session_token(_resolve_token(request))
    response = JSONResponse({'ok': True})
    response.delete_cookie('auth_session')
    return response


@router.get('/session')
def session_api(user: dict = Depends(require_auth_user)):
    return {
        'mentor_id': user['mentor_id'],
        'email': user['email'],
        'short_form': user['short_form'],
    }
