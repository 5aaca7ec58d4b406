from django.urls import path
from .views import MyWorkloadView

urlpatterns = [
    path('me/workload/', MyWorkloadView.as_view(), name='user_workload'),
]
