"""
Формы для администрирования графиков и отчётов
"""
from django import forms

from .exceptions import FormatError, ScheduleConfigError
from .models import StaffMember, WorkingHours
from .schedule import DaySchedule
from .timeutils import time_to_hhmm


class WorkingHoursForm(forms.ModelForm):
    """Форма для рабочих часов сотрудника"""

    class Meta:
        model = WorkingHours
        fields = ['day_of_week', 'is_working', 'start_time', 'end_time', 'break_start', 'break_end']
        widgets = {
            'day_of_week': forms.Select(attrs={'class': 'form-select'}),
            'start_time': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
            'end_time': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
            'break_start': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
            'break_end': forms.TimeInput(attrs={'type': 'time', 'class': 'form-control'}, format='%H:%M'),
        }

    def clean(self):
        cleaned_data = super().clean()
        day_of_week = cleaned_data.get('day_of_week')
        start_time = cleaned_data.get('start_time')
        end_time = cleaned_data.get('end_time')

        if day_of_week is None or not start_time or not end_time:
            return cleaned_data

        day = DaySchedule(
            day_of_week=day_of_week,
            is_working=cleaned_data.get('is_working', False),
            start_time=time_to_hhmm(start_time),
            end_time=time_to_hhmm(end_time),
            break_start=time_to_hhmm(cleaned_data.get('break_start')),
            break_end=time_to_hhmm(cleaned_data.get('break_end')),
        )
        try:
            day.validate()
        except (ScheduleConfigError, FormatError) as e:
            raise forms.ValidationError(str(e))

        return cleaned_data


class ReportForm(forms.Form):
    """Форма для отчетов"""
    start = forms.DateField(input_formats=['%Y-%m-%d'], label='Дата начала')
    end = forms.DateField(input_formats=['%Y-%m-%d'], label='Дата окончания')
    employee = forms.ModelChoiceField(
        queryset=StaffMember.objects.all(),
        required=False,
        label='Сотрудник'
    )

    def __init__(self, *args, business=None, **kwargs):
        super().__init__(*args, **kwargs)
        if business is not None:
            self.fields['employee'].queryset = StaffMember.objects.filter(business=business)

    def clean(self):
        cleaned_data = super().clean()
        start = cleaned_data.get('start')
        end = cleaned_data.get('end')

        if start and end:
            if start > end:
                raise forms.ValidationError({
                    'end': 'Дата окончания должна быть не раньше даты начала'
                })
            if (end - start).days > 366:
                raise forms.ValidationError({
                    'end': 'Период отчёта не может превышать один год'
                })

        return cleaned_data
